#!/usr/bin/env python3
import re
from collections import namedtuple

# Order matters. The first predicate that holds names the platform.
PLATFORM_KINDS = "NovaSeqX NovaSeq HiSeqX HiSeq4000 HiSeq MiniSeq MiSeq NextSeq".split()

# Platforms where a paired run reads index 2 after the read 2 resynthesis step
I5OPPOSITE_PAIRED_PLATFORMS = "HiSeqX HiSeq4000 MiniSeq NextSeq".split()

# NovaSeq v1.5 reagents do the same
NOVASEQ_I5FLIP_REAGENT_VER = 3

_fields = """ application_name instrument_type flowcell_description run_parameters_version
              workflow_type flowcell_mode sbs_consumable_version run_mode
              instrument_side experiment_name reagent_kit_barcode """.split()

class PlatformProfile(namedtuple('PlatformProfile', _fields)):
    """What the RunParameters.xml says about the instrument and the chemistry.
       All fields are strings and any may be empty. Everything else is derived, so
       the profile is immutable once made. See RunParametersXMLParser.get_platform().

       The platform tests are literal, case-sensitive substring matches, same as
       the instrument software writes them.
    """
    __slots__ = ()

    @classmethod
    def from_dict(cls, **kwargs):
        return cls(**{ f: kwargs.get(f) or '' for f in _fields })

    # Platform predicates. A NovaSeq X may also look like a NovaSeq, and a
    # HiSeq X or 4000 run has 'HiSeq' in the application name.
    @property
    def platform_HiSeq(self):
        return ( 'HiSeq' in self.application_name and
                 not (self.platform_HiSeqX or self.platform_HiSeq4000) )

    @property
    def platform_HiSeq4000(self):
        return 'HiSeq 3000/4000' in self.flowcell_description

    @property
    def platform_HiSeqX(self):
        return 'HiSeq X' in self.flowcell_description

    @property
    def platform_MiniSeq(self):
        return 'MiniSeq' in self.run_parameters_version

    @property
    def platform_MiSeq(self):
        return 'MiSeq' in self.application_name

    @property
    def platform_NextSeq(self):
        return 'NextSeq' in self.application_name

    @property
    def platform_NovaSeq(self):
        return 'NovaSeq' in self.application_name

    @property
    def platform_NovaSeqX(self):
        return 'NovaSeqX' in self.instrument_type

    @property
    def kind(self):
        for k in PLATFORM_KINDS:
            if getattr(self, 'platform_' + k):
                return k
        return 'Unknown'

    @property
    def is_novaseq_family(self):
        """NovaSeq and NovaSeq X share the CBCL output and the CopyComplete.txt marker.
        """
        return self.platform_NovaSeq or self.platform_NovaSeqX

    @property
    def uses_patterned_flowcell(self):
        return ( self.platform_NovaSeq or self.platform_NovaSeqX or
                 self.platform_HiSeqX or self.platform_HiSeq4000 )

    @property
    def consumable_version(self):
        """SbsConsumableVersion as an int. Old runs don't report it, which means version 1.
        """
        try:
            return int(self.sbs_consumable_version or '1')
        except ValueError:
            return 1

    # Workflow predicates
    @property
    def is_rapid_run(self):
        return 'RapidRun' in self.run_mode

    @property
    def is_rapid_run_v1(self):
        return 'Rapid Flow Cell v1' in self.flowcell_description

    @property
    def is_rapid_run_v2(self):
        return 'Rapid Flow Cell v2' in self.flowcell_description

    @property
    def is_rapid_run_abovev2(self):
        mo = re.search(r'Rapid Flow Cell v(\d)', self.flowcell_description)
        return bool(mo) and int(mo.group(1)) > 2

    @property
    def all_lanes_mergeable(self):
        """On a NovaSeq standard workflow (not Xp) or a rapid run the same library
           goes onto every lane.
        """
        return 'NovaSeqStandard' in self.workflow_type or self.is_rapid_run
