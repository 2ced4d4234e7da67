#!/usr/bin/env python3

"""Exceptions raised by the staging monitor.
   Anything that means "not yet" (missing markers, missing tiles) is not an
   exception. These are for run folders we can't reason about, or for moves
   that an operator needs to look at.
"""

class RunFolderError(Exception):
    pass

# Descriptor resolution
class DescriptorNotFound(RunFolderError, FileNotFoundError):
    pass

class AmbiguousDescriptor(RunFolderError, LookupError):
    pass

# Descriptor content
class InvalidDescriptor(RunFolderError, ValueError):
    pass

class UnsupportedConfiguration(RunFolderError):
    """The platform should have supplied some information and it did not.
    """
    pass

# Stage transitions
class StageTransitionError(RunFolderError):
    pass

class NotInExpectedStage(StageTransitionError):
    pass

class AmbiguousStage(StageTransitionError):
    pass

class DestinationExists(StageTransitionError, FileExistsError):
    pass

class NoStatusRecord(StageTransitionError):
    """The move would need to read or update the run status, and there is no record.
    """
    pass
