#!/usr/bin/env python3
import os, stat
import grp
import shutil
import logging
from collections import namedtuple

from stagemonitor.errors import NotInExpectedStage, AmbiguousStage, DestinationExists, NoStatusRecord

L = logging.getLogger(__name__)

# Run folders move through these directories, in this order
STAGES = ['incoming', 'analysis', 'outgoing']

INTENSITIES_DIR_PATH = 'Data/Intensities'

ANALYSIS_PENDING = 'analysis pending'
QC_COMPLETE = 'qc complete'

RunFolderRef = namedtuple('RunFolderRef', 'path stage')

def run_folder_ref(path):
    """Say which stage a run folder is in, going by the last stage directory
       in the path.
    """
    stage = 'Unknown'
    for seg in path.split(os.sep):
        if seg in STAGES:
            stage = seg.capitalize()
    return RunFolderRef(path=path, stage=stage)

def destination_path(run_folder, src, dest):
    """Swap the /src/ directory in the path for /dest/.
       There must be exactly one /src/ in the path and the new path must
       not exist yet.
    """
    if not (src and dest):
        raise ValueError("Need two names")

    src_seg, dest_seg = '/{}/'.format(src), '/{}/'.format(dest)
    if src_seg not in run_folder:
        raise NotInExpectedStage("{} is not in {}".format(run_folder, src))

    new_path = run_folder.replace(src_seg, dest_seg, 1)
    if src_seg in new_path:
        raise AmbiguousStage("{} contains multiple upstream {} directories".format(run_folder, src))

    if os.path.exists(new_path):
        raise DestinationExists("Path in {} {} already exists".format(dest, new_path))

    return new_path

def move_folder(run_folder, destination):
    """Move the folder. Failure is reported, not raised, since the caller is a polling
       loop that will want to log it and carry on.
       Returns (moved, message)
    """
    if not destination:
        raise ValueError("Need destination")
    try:
        shutil.move(run_folder, destination)
    except OSError as e:
        return False, "Failed to move {} to {}: {}".format(run_folder, destination, e)
    return True, "Moved {} to {}".format(run_folder, destination)

def set_sgid(directory):
    """Add 's' to the group permission so that new files and directories get the
       same group as the parent directory.
    """
    os.chmod(directory, os.stat(directory).st_mode | stat.S_ISGID)

def change_group(group, directory):
    """Make directory owned by group, group-writable and setgid.
       The directory is re-created so that it is owned by us, then the contents are moved
       back in. This is not atomic. If it dies part way the contents will be left in
       directory.original and will need to be put back by hand.
    """
    # Look this up first so an unknown group fails before anything is touched
    gid = grp.getgrnam(group).gr_gid

    temp = directory + '.original'
    L.debug("Moving {} aside to {}".format(directory, temp))
    os.rename(directory, temp)
    os.mkdir(directory)
    for f in os.listdir(temp):
        shutil.move(os.path.join(temp, f), os.path.join(directory, f))

    os.chown(directory, -1, gid)
    os.chmod(directory, 0o775)
    set_sgid(directory)

    os.rmdir(temp)

class StageMover:
    """Moves run folders between the lifecycle directories, keeping the run status
       record in line.
       The status record needs to provide:
         id_run
         current_run_status_description()
         update_run_status(status, actor)
       and config is a StagingConfig.
    """
    def __init__(self, config, status_record=None):
        self.config = config
        self.status_record = status_record

    def _need_status_record(self, action):
        # Checked before anything on disk changes
        if self.status_record is None:
            raise NoStatusRecord("Cannot {} without a run status record".format(action))

    def move_to_analysis(self, run_folder):
        """Move the run folder from incoming to analysis, fix up the group and set
           the run status to 'analysis pending'.
           Returns a list of messages saying what was done.
        """
        if self.config.status_update:
            self._need_status_record("move {} to analysis".format(run_folder))

        destination = destination_path(run_folder, 'incoming', 'analysis')
        moved, m = move_folder(run_folder, destination)
        messages = [m]
        if not moved:
            L.warning(m)
            return messages
        L.info(m)

        group = self.config.change_group and self.config.analysis_group_for(run_folder)
        if group:
            change_group(group, destination)
            intensities_dir = os.path.join(destination, INTENSITIES_DIR_PATH)
            if os.path.isdir(intensities_dir):
                change_group(group, intensities_dir)
            else:
                L.warning("No {} in {}".format(INTENSITIES_DIR_PATH, destination))
            messages.append("Changed group to {}".format(group))

        if self.config.status_update:
            self.status_record.update_run_status(ANALYSIS_PENDING, self.config.username)
            messages.append("Updated Run Status to {}".format(ANALYSIS_PENDING))

        return messages

    def move_to_outgoing(self, run_folder):
        """Move the run folder from analysis to outgoing, but only once QC is done.
           Returns a message saying what was done, or why not.
        """
        self._need_status_record("move {} to outgoing".format(run_folder))

        status = self.status_record.current_run_status_description()
        if status != QC_COMPLETE:
            return "Run {} status {} is not {}, not moving to outgoing".format(
                        self.status_record.id_run, status, QC_COMPLETE)

        moved, m = move_folder(run_folder, destination_path(run_folder, 'analysis', 'outgoing'))
        if moved:
            L.info(m)
        else:
            L.warning(m)
        return m

    def is_in_analysis(self, run_folder):
        try:
            destination_path(run_folder, 'analysis', 'outgoing')
        except NotInExpectedStage:
            return False
        return True
