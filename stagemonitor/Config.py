#!/usr/bin/env python3
import os
import logging
from collections import namedtuple

import yaml, yamlloader

from stagemonitor.RunCompletion import RTA_COMPLETE_WAIT, MAX_COMPLETE_WAIT

L = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = os.path.join(os.path.expanduser('~'), '.staging_settings.yml')

_defaults = dict( analysis_group = None,
                  analysis_groups = {},
                  change_group = True,
                  status_update = True,
                  username = 'pipeline',
                  rta_complete_wait = RTA_COMPLETE_WAIT,
                  max_complete_wait = MAX_COMPLETE_WAIT )

class StagingConfig(namedtuple('StagingConfig', list(_defaults))):
    """Settings for the staging monitor. Make one with load_staging_config() or,
       in tests, with StagingConfig.from_dict().
    """
    __slots__ = ()

    @classmethod
    def from_dict(cls, **kwargs):
        unknown = set(kwargs) - set(_defaults)
        if unknown:
            raise ValueError("Unknown staging settings: {}".format(', '.join(sorted(unknown))))

        settings = dict(_defaults)
        settings.update(kwargs)
        settings['analysis_groups'] = dict(settings['analysis_groups'] or {})
        for k in ['rta_complete_wait', 'max_complete_wait']:
            settings[k] = int(settings[k])
        return cls(**settings)

    def analysis_group_for(self, run_folder):
        """The group that should own a run folder once it goes into analysis.
           This depends on which staging area the run is in. The longest matching
           root wins. If there is no match, use the default analysis_group, which
           may be None, meaning leave the group alone.
        """
        run_folder = os.path.abspath(run_folder)
        matches = [ (len(os.path.abspath(root)), group)
                    for root, group in self.analysis_groups.items()
                    if run_folder.startswith(os.path.join(os.path.abspath(root), '')) ]
        if not matches:
            return self.analysis_group
        return max(matches, key=lambda m: m[0])[1]

def load_staging_config(filename=None):
    """Either read the config pointed to by filename, or by STAGING_SETTINGS, or else the
       default. Don't attempt to read more than one.
       If there is no default file then all the defaults apply, but if a file was named
       explicitly it must exist.
    """
    explicit = filename or os.environ.get('STAGING_SETTINGS')
    filename = explicit or DEFAULT_SETTINGS_FILE

    if not os.path.exists(filename):
        if explicit:
            raise FileNotFoundError("Unable to read staging settings file {}".format(filename))
        L.debug("No {} - using default settings".format(filename))
        return StagingConfig.from_dict()

    with open(filename) as yfh:
        settings = yaml.load(yfh, Loader=yamlloader.ordereddict.CSafeLoader)

    L.debug("Loaded staging settings from {}".format(filename))
    return StagingConfig.from_dict(**(settings or {}))
