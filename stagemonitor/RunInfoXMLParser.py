#!/usr/bin/env python3
import os
import logging
from collections import namedtuple, OrderedDict
from functools import reduce
from types import MappingProxyType

from stagemonitor.DescriptorFinder import ( load_descriptor, get_single_element_text,
                                            RUNINFO_PATTERN, INTENSITIES_CONFIG_PATTERN )
from stagemonitor.errors import RunFolderError, InvalidDescriptor

L = logging.getLogger(__name__)

# One read as the instrument describes it. Cycles are 1-based and inclusive.
ReadSpec = namedtuple('ReadSpec', 'first last is_index')

TileLayout = namedtuple('TileLayout', 'rows columns')

class ReadAccumulator(namedtuple('ReadAccumulator', """ read_cycle_counts reads_indexed
                                                        indexing_range read1_range read2_range
                                                        index_read1_range index_read2_range """)):
    """State carried from one read to the next while working out the read structure.
    """
    __slots__ = ()

    @classmethod
    def initial(cls):
        return cls( read_cycle_counts = (),
                    reads_indexed = (),
                    indexing_range = None,
                    read1_range = None,
                    read2_range = None,
                    index_read1_range = None,
                    index_read2_range = None )

def end_of_read(acc, read):
    """Fold one read into the accumulator.
       Two adjacent index reads make a single indexing range, with the second one also
       recorded as index read 2. Anything we can't represent (a third genomic read, or an
       index read that isn't next to the first) is logged and otherwise ignored.
    """
    count = read.last - read.first + 1
    if count <= 0:
        return acc

    acc = acc._replace( read_cycle_counts = acc.read_cycle_counts + (count,),
                        reads_indexed = acc.reads_indexed + (bool(read.is_index),) )
    this_range = (read.first, read.last)

    if read.is_index:
        if acc.indexing_range is None:
            return acc._replace( indexing_range = this_range,
                                 index_read1_range = this_range )

        start, end = acc.indexing_range
        if read.first == end + 1:
            return acc._replace( indexing_range = (start, read.last),
                                 index_read2_range = this_range )

        L.warning("Don't know how to deal with non adjacent indexing reads: {},{} and {},{}".format(
                                                                              start, end, *this_range))
        return acc

    if acc.read1_range is None:
        return acc._replace(read1_range = this_range)
    if acc.read2_range is None:
        return acc._replace(read2_range = this_range)

    L.warning("Don't know how to deal with more than 2 non index reads (last read range {},{})".format(
                                                                                           *this_range))
    return acc

def accumulate_reads(reads):
    return reduce(end_of_read, reads, ReadAccumulator.initial())

class RunGeometry(namedtuple('RunGeometry', """ lane_count surface_count tile_layout tile_count
                                                lane_tile_count expected_cycle_count
                                                read_cycle_counts reads_indexed indexing_range
                                                read1_range read2_range
                                                index_read1_range index_read2_range """)):
    """The physical layout of the flowcell and the read structure of the run.
       Made once by RunInfoXMLParser.get_geometry() and never changed.
    """
    __slots__ = ()

    @property
    def is_paired(self):
        return self.read2_range is not None

    @property
    def is_indexed(self):
        return self.indexing_range is not None

    @property
    def is_dual_index(self):
        return self.index_read2_range is not None

    @property
    def index_length(self):
        if not self.is_indexed:
            return 0
        start, end = self.indexing_range
        return end - start + 1

def _int_attr(e, attr):
    try:
        return int(e.attrib[attr])
    except (KeyError, ValueError) as ex:
        raise InvalidDescriptor("Bad or missing {} attribute on {} element: {!r}".format(attr, e.tag, ex))

def get_lane_tile_count(run_folder):
    """Read the per-lane tile counts from Data/Intensities/config.xml, if there is one.
       Returns an OrderedDict of { lane_number: tile_count } in document order, or
       None if the file is missing or doesn't have the info.
    """
    try:
        root = load_descriptor(os.path.join(run_folder, 'Data', 'Intensities'), INTENSITIES_CONFIG_PATTERN)
    except RunFolderError as e:
        L.debug("No usable intensities config: {}".format(e))
        return None

    run_el = next(root.iter('Run'), None)
    tile_selection = run_el.find('TileSelection') if run_el is not None else None
    if tile_selection is None:
        L.debug("No Run/TileSelection in intensities config")
        return None

    res = OrderedDict()
    for lane_el in tile_selection.findall('Lane'):
        res[_int_attr(lane_el, 'Index')] = len(list(lane_el.iter('Tile')))
    return res or None

class RunInfoXMLParser:
    """Uses the python xml parser to extract the run identity and read structure
       from RunInfo.xml.
    """
    def __init__( self , run_folder ):

        self.root = root = load_descriptor(run_folder, RUNINFO_PATTERN)

        run_el = next(root.iter('Run'), None)
        self.run_info = dict( RunId = run_el.attrib.get('Id', '') if run_el is not None else '',
                              Instrument = get_single_element_text(root, 'Instrument') )

        # Newer instruments say explicitly which reads are reverse complemented.
        # Keep any non-empty value, keyed by read number.
        self.reverse_complement_flags = { r.attrib.get('Number', '') : r.attrib['IsReverseComplement']
                                          for r in self._read_elements()
                                          if r.attrib.get('IsReverseComplement') }

    def get_flowcell(self):
        """Only read when wanted, since the MiSeq gets its flowcell ID elsewhere.
        """
        return get_single_element_text(self.root, 'Flowcell')

    def _read_elements(self):
        reads_el = next(self.root.iter('Reads'), None)
        if reads_el is None:
            return []
        return list(reads_el.iter('Read'))

    def get_geometry(self, platform, lane_tile_count=None):
        """Work out the RunGeometry. The platform is needed because NovaSeq runs must
           have a FlowcellLayout and because SP flowcells claim a surface they don't have.
           lane_tile_count is what get_lane_tile_count() found, if anything.
        """
        fcl_el = next(self.root.iter('FlowcellLayout'), None)
        if not self._read_elements():
            raise InvalidDescriptor("No Reads found in RunInfo.xml")

        if fcl_el is None:
            # Older style with Lane elements and explicit cycle ranges
            if platform.platform_NovaSeq:
                raise InvalidDescriptor("No FlowcellLayout for NovaSeq run")

            cycles_el = next(self.root.iter('Cycles'), None)
            if cycles_el is None:
                raise InvalidDescriptor("No FlowcellLayout and no Cycles element in RunInfo.xml")

            lane_count = len(list(self.root.iter('Lane')))
            surface_count = 1
            tile_layout = None
            tile_count = next(iter(lane_tile_count.values())) if lane_tile_count else 0
            acc = accumulate_reads(self._reads_from_cycle_ranges())
            expected_cycle_count = _int_attr(cycles_el, 'Incorporation')
        else:
            lane_count = _int_attr(fcl_el, 'LaneCount')
            surface_count = _int_attr(fcl_el, 'SurfaceCount')
            if platform.platform_NovaSeq and platform.flowcell_mode == 'SP':
                # NovaSeq SP flowcells only have one surface
                surface_count = 1
            # TileCount is an informatic split on the HiSeq
            tile_layout = TileLayout( rows = _int_attr(fcl_el, 'TileCount'),
                                      columns = surface_count * _int_attr(fcl_el, 'SwathCount') )
            tile_count = tile_layout.rows * tile_layout.columns
            acc = accumulate_reads(self._reads_from_cycle_counts())
            expected_cycle_count = sum(acc.read_cycle_counts)

        if not lane_tile_count:
            lane_tile_count = { l: tile_count for l in range(1, lane_count + 1) }

        return RunGeometry( lane_count = lane_count,
                            surface_count = surface_count,
                            tile_layout = tile_layout,
                            tile_count = tile_count,
                            lane_tile_count = MappingProxyType(dict(lane_tile_count)),
                            expected_cycle_count = expected_cycle_count,
                            **acc._asdict() )

    def _reads_from_cycle_counts(self):
        """<Read Number="1" NumCycles="151" IsIndexedRead="N" />
           The reads follow on from each other, so count up.
        """
        res = []
        last_cycle = 0
        for r in self._read_elements():
            num_cycles = _int_attr(r, 'NumCycles')
            res.append(ReadSpec( first = last_cycle + 1,
                                 last = last_cycle + num_cycles,
                                 is_index = r.attrib.get('IsIndexedRead') == 'Y' ))
            last_cycle += num_cycles
        return res

    def _reads_from_cycle_ranges(self):
        """<Read FirstCycle="1" LastCycle="76"><Index .../></Read>
           Only the first read with an Index element counts as the index read.
        """
        res = []
        index_found = False
        for r in self._read_elements():
            is_index = False
            if not index_found and r.find('.//Index') is not None:
                is_index = index_found = True
            res.append(ReadSpec( first = _int_attr(r, 'FirstCycle'),
                                 last = _int_attr(r, 'LastCycle'),
                                 is_index = is_index ))
        return res
