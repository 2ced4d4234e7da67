#!/usr/bin/env python3
import os, re
import time
import logging
from collections import namedtuple

L = logging.getLogger(__name__)

RTA_COMPLETE_FN = 'RTAComplete.txt'
COPY_COMPLETE_FN = 'CopyComplete.txt'
EVENTS_LOG_FN = 'Events.log'

# The last thing the instrument writes to Events.log once everything is mirrored
EVENTS_LOG_SENTINEL = re.compile(r'Copying logs to network run folder\s*\Z')

RTA_COMPLETE_WAIT = 10 * 60
MAX_COMPLETE_WAIT = 6 * 60 * 60
MAXIMUM_CYCLE_LAG = 6

CompletionState = namedtuple('CompletionState', 'mirroring_complete rta_complete copy_complete cycle_lag')

def cycle_lag(actual_cycle_count, latest_cycle):
    """If there is a problem mirroring data from the instrument to the staging area
       the actual_cycle_count (as reported by the instrument) will be ahead of the
       number of cycles we can see.
    """
    return (actual_cycle_count - latest_cycle) > MAXIMUM_CYCLE_LAG

class RunCompletion:
    """Works out if the instrument has finished writing a run folder, based on the
       RTAComplete.txt and CopyComplete.txt marker files and their timestamps.
       Nothing is cached. Every call looks at the filesystem again, since the whole
       point is to call this repeatedly until the answer changes.
    """
    def __init__( self, run_folder, platform,
                  rta_complete_wait = RTA_COMPLETE_WAIT,
                  max_complete_wait = MAX_COMPLETE_WAIT,
                  now = time.time ):
        self.run_folder = run_folder
        self.platform = platform
        self.rta_complete_wait = rta_complete_wait
        self.max_complete_wait = max_complete_wait
        # So the tests can control the clock
        self._now = now

    def _find_files(self, filename):
        """Files in the top level of the run folder named exactly filename.
           We list the directory rather than calling os.path.exists() because the
           staging filesystem may be case-insensitive, and 'RTAcomplete.txt' is not
           a marker.
        """
        try:
            names = os.listdir(os.path.join(self.run_folder, ''))
        except OSError as e:
            L.warning("Cannot list {}: {}".format(self.run_folder, e))
            return []

        markers = [ os.path.join(self.run_folder, n) for n in names if n == filename ]
        if len(markers) > 1:
            L.warning("Unexpected to find multiple files matching '{}' in staging.".format(filename))
        return markers

    def _age(self, filename):
        """Seconds since filename was modified, or None if there is no such file.
        """
        markers = self._find_files(filename)
        if not markers:
            return None
        return self._now() - os.stat(markers[0]).st_mtime

    def rta_complete(self):
        return bool(self._find_files(RTA_COMPLETE_FN))

    def copy_complete(self):
        return bool(self._find_files(COPY_COMPLETE_FN))

    def is_run_complete(self):
        """For a non-NovaSeq run folder RTAComplete.txt is enough.
           For NovaSeq(X) we need CopyComplete.txt as well, or else RTAComplete.txt
           has to have been there longer than max_complete_wait.
        """
        rta_age = self._age(RTA_COMPLETE_FN)
        has_copy_complete = self.copy_complete()

        if rta_age is None:
            if has_copy_complete:
                L.warning("Run folder '{}' with CopyComplete but not RTAComplete".format(self.run_folder))
            return False

        if self.platform.is_novaseq_family:
            if has_copy_complete:
                return True
            return rta_age > self.max_complete_wait

        return True

    def mirroring_complete(self):
        """Mirroring is complete if RTAComplete.txt is older than rta_complete_wait or
           if the Events.log says the logs have been copied.
           No RTAComplete.txt counts as an age of zero.
        """
        L.info("Checking for mirroring complete in {}".format(self.run_folder))

        rta_age = self._age(RTA_COMPLETE_FN) or 0
        if rta_age > self.rta_complete_wait:
            return True

        events_file = os.path.join(self.run_folder, EVENTS_LOG_FN)
        if os.path.exists(events_file):
            with open(events_file, errors='replace') as efh:
                if EVENTS_LOG_SENTINEL.search(efh.read()):
                    return True

        return False
