#!/usr/bin/env python3
import os, sys
import time
import logging

import yaml

from stagemonitor.Config import StagingConfig, load_staging_config
from stagemonitor.RunMetadata import RunMetadata
from stagemonitor.RunCompletion import RunCompletion, CompletionState, cycle_lag
from stagemonitor.TileChecker import check_tiles, CycleInventory
from stagemonitor.StageMover import StageMover, run_folder_ref
from stagemonitor.errors import RunFolderError

L = logging.getLogger(__name__)

class StagingRunFolder:
    """This Class provides information about a sequencing run in the staging area,
       given a run folder, and can move it along to analysis and outgoing.
       It will get information from the following sources:
         RunInfo.xml and RunParameters.xml - to obtain geometry and platform
         Run directory content - to obtain completion status
         The run status record - to obtain the actual cycle count and run status

       The metadata is read once, on first use. Everything else looks at the disk
       every time.
    """
    def __init__( self, run_folder, status_record=None, config=None, now=time.time ):
        self.run_folder = run_folder
        self.status_record = status_record
        self.config = config or StagingConfig.from_dict()

        self.metadata = RunMetadata(run_folder)
        self.cycle_inventory = CycleInventory()
        self.mover = StageMover(self.config, status_record)
        self._now = now

    @property
    def stage(self):
        return run_folder_ref(self.run_folder).stage

    def _completion(self):
        return RunCompletion( self.run_folder,
                              self.metadata.platform,
                              rta_complete_wait = self.config.rta_complete_wait,
                              max_complete_wait = self.config.max_complete_wait,
                              now = self._now )

    def is_run_complete(self):
        return self._completion().is_run_complete()

    def mirroring_complete(self):
        return self._completion().mirroring_complete()

    def check_tiles(self):
        return check_tiles(self.run_folder, self.metadata.geometry, self.metadata.platform)

    def latest_cycle(self):
        return self.cycle_inventory.latest_cycle(self.run_folder)

    def missing_cycles(self):
        return self.cycle_inventory.missing_cycles( self.run_folder,
                                                    self.metadata.geometry.expected_cycle_count )

    def _actual_cycle_count(self):
        return getattr(self.status_record, 'actual_cycle_count', None) or 0

    def delay(self):
        """How many cycles the instrument is ahead of what we can see.
        """
        return self._actual_cycle_count() - self.latest_cycle()

    def cycle_lag(self):
        return cycle_lag(self._actual_cycle_count(), self.latest_cycle())

    def validate_run_complete(self):
        """Perform a series of checks to make sure the run really is complete.
           Return False if any of them fails.
        """
        if self.cycle_lag():
            L.warning("Cycle lag of {} on {}".format(self.delay(), self.run_folder))
            return False
        if not self.mirroring_complete():
            return False
        if not self.check_tiles():
            return False
        return True

    def get_completion_state(self):
        completion = self._completion()
        return CompletionState( mirroring_complete = completion.mirroring_complete(),
                                rta_complete = completion.rta_complete(),
                                copy_complete = completion.copy_complete(),
                                cycle_lag = self.cycle_lag() )

    def monitor_stats(self):
        """Returns the total size of everything below the run folder, and also the
           latest modification time found.
        """
        total_size, latest_mod = 0, 0
        for root, dirs, files in os.walk(self.run_folder):
            for f in dirs + files:
                try:
                    st = os.lstat(os.path.join(root, f))
                except FileNotFoundError:
                    # Temp files come and go while the instrument writes
                    continue
                total_size += st.st_size
                latest_mod = max(latest_mod, st.st_mtime)
        return total_size, latest_mod

    def move_to_analysis(self):
        return self.mover.move_to_analysis(self.run_folder)

    def move_to_outgoing(self):
        return self.mover.move_to_outgoing(self.run_folder)

    def is_in_analysis(self):
        return self.mover.is_in_analysis(self.run_folder)

    def get_yaml(self):
        try:
            desc = self.metadata.build()
            completion = self._completion()
            info = dict( RunID = desc.identity.run_id,
                         Stage = self.stage,
                         Platform = desc.platform.kind,
                         LaneCount = desc.geometry.lane_count,
                         ExpectedCycles = desc.geometry.expected_cycle_count,
                         LatestCycle = self.latest_cycle(),
                         RTAComplete = completion.rta_complete(),
                         CopyComplete = completion.copy_complete(),
                         RunComplete = completion.is_run_complete(),
                         MirroringComplete = completion.mirroring_complete() )
        except RunFolderError: # possible that the provided run folder was not a valid run folder
            if os.environ.get('DEBUG', '0') != '0': raise

            info = dict( RunID = 'unknown',
                         Stage = self.stage,
                         Platform = 'unknown',
                         LaneCount = 0 )

        return yaml.safe_dump(info, default_flow_style=False, sort_keys=False)

if __name__ == '__main__':
    logging.basicConfig( level = logging.DEBUG if os.environ.get('VERBOSE', '0') != '0' else logging.WARNING,
                         format = "%(levelname)s: %(message)s" )

    #If no run specified, examine the CWD.
    config = load_staging_config()
    for run in sys.argv[1:] or ['.']:
        print( StagingRunFolder(run, config=config).get_yaml(), end='' )
