#!/usr/bin/env python3

from stagemonitor.DescriptorFinder import ( load_descriptor, get_single_element_text,
                                            RUNPARAMETERS_PATTERN )
from stagemonitor.PlatformProfile import PlatformProfile

class RunParametersXMLParser:
    """Uses the python xml parser to extract the instrument and chemistry details
       from {r|R}unParameters.xml and store them in a dictionary.
       The tags we need move around between sequencers but the names are stable,
       so we search the whole document for each tag and insist there is at most one.
    """
    def __init__( self , run_folder ):

        self.root = root = load_descriptor(run_folder, RUNPARAMETERS_PATTERN)
        t = lambda tag: get_single_element_text(root, tag)

        self.run_parameters = dict(
            # Older instruments say Application, newer ones ApplicationName
            application_name = t('ApplicationName') or t('Application'),
            instrument_type = t('InstrumentType'),
            # On the HiSeq the Flowcell tag is a description, eg. 'HiSeq X HD v2'
            flowcell_description = t('Flowcell'),
            run_parameters_version = t('RunParametersVersion'),
            workflow_type = t('WorkflowType'),
            flowcell_mode = t('FlowCellMode'),
            # On the newer NovaSeq runs we can get the chemistry version
            sbs_consumable_version = t('SbsConsumableVersion') or '1',
            run_mode = t('RunMode'),
            instrument_side = t('Side') or t('FCPosition'),
            experiment_name = t('ExperimentName'),
        )

    def get_platform(self):
        platform = PlatformProfile.from_dict(**self.run_parameters)
        if platform.platform_MiSeq:
            # Only the MiSeq puts this in, and it's the flowcell ID we want there
            platform = platform._replace(
                    reagent_kit_barcode = get_single_element_text(self.root, 'ReagentKitBarcode') )
        return platform
