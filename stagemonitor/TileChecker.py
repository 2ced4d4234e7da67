#!/usr/bin/env python3
import os, re
import logging
from glob import glob

L = logging.getLogger(__name__)

BASECALLS_DIR = 'Data/Intensities/BaseCalls'

LANE_DIR_RE = re.compile(r'L(\d+)$')
CYCLE_DIR_RE = re.compile(r'C(\d+)\.1$')
CBCL_RE = re.compile(r'L\d+_\d+\.cbcl(?:\.gz)?$')
BCL_RE = re.compile(r's_\d+_\d+\.bcl(?:\.gz)?$')

def _matching(pattern, regex):
    return sorted( p for p in glob(pattern) if regex.match(os.path.basename(p)) )

def check_tiles(run_folder, geometry, platform):
    """Confirm the number of lanes, cycles and tiles are as expected.
       NovaSeq(X) writes one CBCL file per surface per cycle, older
       platforms one BCL file per tile.
       Stops at the first thing that is missing, and says what it was.
    """
    L.info("Checking Lanes, Cycles, Tiles in {}".format(run_folder))

    lanes = _matching(os.path.join(run_folder, BASECALLS_DIR, 'L*'), LANE_DIR_RE)
    if len(lanes) != geometry.lane_count:
        L.warning("Missing lane(s) - [{} {}]".format(geometry.lane_count, len(lanes)))
        return False

    for lane in lanes:
        cycles = _matching(os.path.join(lane, 'C*.1'), CYCLE_DIR_RE)
        if len(cycles) != geometry.expected_cycle_count:
            L.warning("Missing cycle(s) {} - [{} {}]".format(lane, geometry.expected_cycle_count, len(cycles)))
            return False

        lane_number = int(LANE_DIR_RE.match(os.path.basename(lane)).group(1))
        if lane_number not in geometry.lane_tile_count:
            L.warning("No expected tile count for lane {}".format(lane_number))
            return False
        expected_tiles = geometry.lane_tile_count[lane_number]

        for cycle in cycles:
            if platform.is_novaseq_family:
                found = len(_matching(os.path.join(cycle, '*.cbcl*'), CBCL_RE))
                # There should be one cbcl file per surface
                if found != geometry.surface_count:
                    L.warning("Missing cbcl files: {} - [expected: {}, found: {}]".format(
                                                       cycle, geometry.surface_count, found))
                    return False
            else:
                found = len(_matching(os.path.join(cycle, '*.bcl*'), BCL_RE))
                if found != expected_tiles:
                    L.warning("Missing tile(s): {} C#{} - [{} {}]".format(
                                                 lane, os.path.basename(cycle), expected_tiles, found))
                    return False

    return True

class CycleInventory:
    """Finds which cycles have made it to the staging area.
       The numbers found for a path are remembered until missing_cycles() is called
       for that path, after which the next call scans the disk again.
       latest_cycle() always re-scans, and leaves the result for missing_cycles().
    """
    def __init__(self):
        self._cycle_numbers_cache = {}

    def cycle_numbers(self, run_folder):
        if run_folder not in self._cycle_numbers_cache:
            found = set()
            for sub in [BASECALLS_DIR, 'Data/Intensities']:
                for d in glob(os.path.join(run_folder, sub, 'L*', 'C*.1')):
                    mo = CYCLE_DIR_RE.match(os.path.basename(d))
                    if mo and LANE_DIR_RE.match(os.path.basename(os.path.dirname(d))):
                        found.add(int(mo.group(1)))
            self._cycle_numbers_cache[run_folder] = sorted(found)
            L.debug("Found {} cycles in {}".format(len(found), run_folder))

        return self._cycle_numbers_cache[run_folder]

    def latest_cycle(self, run_folder):
        self._cycle_numbers_cache.pop(run_folder, None)
        return max(self.cycle_numbers(run_folder), default=0)

    def missing_cycles(self, run_folder, expected_cycle_count):
        """Cycles in 1..expected_cycle_count with no directory on disk, in order.
        """
        seen = set(self.cycle_numbers(run_folder))
        del self._cycle_numbers_cache[run_folder]

        return [ c for c in range(1, expected_cycle_count + 1) if c not in seen ]
