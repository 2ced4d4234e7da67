#!/usr/bin/env python3
import logging
from collections import namedtuple

from stagemonitor.RunInfoXMLParser import RunInfoXMLParser, get_lane_tile_count
from stagemonitor.RunParametersXMLParser import RunParametersXMLParser
from stagemonitor.PlatformProfile import I5OPPOSITE_PAIRED_PLATFORMS, NOVASEQ_I5FLIP_REAGENT_VER
from stagemonitor.errors import InvalidDescriptor, UnsupportedConfiguration

L = logging.getLogger(__name__)

RunIdentity = namedtuple('RunIdentity', 'run_id instrument_name flowcell experiment_name')

# Everything we learn from the descriptors, in one immutable lump
RunDescription = namedtuple('RunDescription', 'identity geometry platform reverse_complement_flags')

class RunMetadata:
    """Information about the Illumina sequencing run, sourced from the descriptor
       files in the run folder:
         RunParameters.xml - to obtain the platform and chemistry
         RunInfo.xml - to obtain the flowcell geometry and read structure
         Data/Intensities/config.xml - per-lane tile counts, if present

       Nothing is read until build() is called, either directly or via one of the
       properties. After that the same RunDescription is returned every time.
       Parsing errors are not trapped. If we can't read the metadata we can't
       reason about the run.
    """
    def __init__( self , run_folder ):
        self.run_folder = run_folder
        self._description = None

    def build(self):
        if self._description is None:
            self._description = self._parse()
        return self._description

    def _parse(self):
        L.debug("Parsing run metadata in {}".format(self.run_folder))

        # The platform comes first since it affects how RunInfo.xml is read
        rpxp = RunParametersXMLParser(self.run_folder)
        platform = rpxp.get_platform()

        rixp = RunInfoXMLParser(self.run_folder)
        geometry = rixp.get_geometry(platform, get_lane_tile_count(self.run_folder))

        # On the MiSeq the flowcell ID in RunInfo.xml is not what we want
        if platform.platform_MiSeq:
            flowcell = platform.reagent_kit_barcode
        else:
            flowcell = rixp.get_flowcell()

        identity = RunIdentity( run_id = rixp.run_info['RunId'],
                                instrument_name = rixp.run_info['Instrument'],
                                flowcell = flowcell,
                                experiment_name = platform.experiment_name )

        return RunDescription( identity = identity,
                               geometry = geometry,
                               platform = platform,
                               reverse_complement_flags = dict(rixp.reverse_complement_flags) )

    @property
    def identity(self):
        return self.build().identity

    @property
    def geometry(self):
        return self.build().geometry

    @property
    def platform(self):
        return self.build().platform

    def is_i5opposite(self):
        """A dual-indexed run on the MiniSeq, NextSeq, HiSeq 4000, HiSeq 3000 or NovaSeq
           using v1.5 reagents reads index 2 after the read 2 resynthesis step, so the i5
           primer is the reverse complement of what other platforms use.
           The NovaSeq X says so explicitly per read in RunInfo.xml.
           Returns True if the reverse complement should be applied.
        """
        desc = self.build()
        platform = desc.platform

        if desc.reverse_complement_flags:
            return does_runinfo_indicate_i5_is_rev_complement(desc.reverse_complement_flags)
        elif platform.platform_NovaSeqX:
            raise UnsupportedConfiguration("Expect NovaSeqX to have an explicit reverse complement flag")
        elif platform.platform_NovaSeq:
            return platform.consumable_version >= NOVASEQ_I5FLIP_REAGENT_VER
        elif desc.geometry.is_paired:
            return any( getattr(platform, 'platform_' + k) for k in I5OPPOSITE_PAIRED_PLATFORMS )
        return False

def does_runinfo_indicate_i5_is_rev_complement(rc_flags):
    """Only index read 2 (read number 3) may be flagged. Anything else means the
       instrument has done something we don't understand.
    """
    res = False
    for read_number, flag in sorted(rc_flags.items()):
        if flag == 'Y':
            if read_number != '3':
                raise InvalidDescriptor("Read {} is marked as IsReverseComplement".format(read_number))
            res = True
    return res
