#!/usr/bin/env python3

import unittest
import sys, os
import logging
from shutil import copy

from stagemonitor.RunParametersXMLParser import RunParametersXMLParser
from stagemonitor.PlatformProfile import PlatformProfile
from stagemonitor.RunMetadata import RunMetadata, does_runinfo_indicate_i5_is_rev_complement
from stagemonitor.errors import InvalidDescriptor, UnsupportedConfiguration

from sandbox import TestSandbox

DATA_DIR = os.path.abspath(os.path.dirname(__file__) + '/seqdata_examples')
VERBOSE = os.environ.get('VERBOSE', '0') != '0'

# What we expect each example run to be
EXPECTED = { '110804_SN123_0001_B00ABCDXX':        ('HiSeq',     False),
             '150602_M01270_0108_000000000-ADWKV': ('MiSeq',     False),
             '160614_K00368_0023_AHF724BBXX':      ('HiSeq4000', True),
             '180619_A00291_0044_BH5WJJDMXX':      ('NovaSeq',   True),
             '210601_A00291_0371_AHF2HCDRXY':      ('NovaSeq',   False),
             '20230801_LH00123_0012_A22FJKLLT3':   ('NovaSeqX',  True) }

class T(unittest.TestCase):

    def setUp(self):
        if VERBOSE:
            logging.getLogger().setLevel(logging.DEBUG)
        else:
            logging.getLogger().setLevel(logging.CRITICAL)

    def test_example_runs(self):
        """Platform kind and i5 orientation for all the examples
        """
        for run, (kind, i5opposite) in EXPECTED.items():
            md = RunMetadata(os.path.join(DATA_DIR, run))
            self.assertEqual((run, md.platform.kind), (run, kind))
            self.assertEqual((run, md.is_i5opposite()), (run, i5opposite))

    def test_run_parameters_novaseq(self):
        rpxp = RunParametersXMLParser( DATA_DIR + '/180619_A00291_0044_BH5WJJDMXX' )
        p = rpxp.get_platform()

        self.assertEqual(p.application_name, 'NovaSeq Control Software')
        self.assertEqual(p.flowcell_mode, 'S2')
        self.assertEqual(p.sbs_consumable_version, '3')
        self.assertEqual(p.workflow_type, 'NovaSeqStandard')
        self.assertEqual(p.instrument_side, 'B')
        self.assertEqual(p.experiment_name, 'H5WJJDMXX_S2')
        self.assertTrue(p.uses_patterned_flowcell)
        self.assertTrue(p.all_lanes_mergeable)
        self.assertTrue(p.is_novaseq_family)
        self.assertFalse(p.platform_NovaSeqX)

    def test_run_parameters_hiseq_rapid(self):
        p = RunParametersXMLParser( DATA_DIR + '/110804_SN123_0001_B00ABCDXX' ).get_platform()

        self.assertEqual(p.kind, 'HiSeq')
        self.assertEqual(p.instrument_side, 'B')
        # Not reported, so assume version 1
        self.assertEqual(p.sbs_consumable_version, '1')
        self.assertTrue(p.is_rapid_run)
        self.assertTrue(p.is_rapid_run_v1)
        self.assertFalse(p.is_rapid_run_v2)
        self.assertFalse(p.is_rapid_run_abovev2)
        self.assertTrue(p.all_lanes_mergeable)
        self.assertFalse(p.uses_patterned_flowcell)

    def test_novaseqx_is_also_novaseq(self):
        p = RunParametersXMLParser( DATA_DIR + '/20230801_LH00123_0012_A22FJKLLT3' ).get_platform()
        self.assertTrue(p.platform_NovaSeqX)
        self.assertTrue(p.platform_NovaSeq)
        self.assertEqual(p.kind, 'NovaSeqX')
        self.assertEqual(p.instrument_side, 'A')

    def test_hiseq_variants(self):
        """HiSeq X and 4000 take priority over plain HiSeq
        """
        hcs = 'HiSeq Control Software'
        self.assertEqual(PlatformProfile.from_dict(application_name=hcs,
                                                   flowcell_description='HiSeq X HD v2').kind, 'HiSeqX')
        self.assertEqual(PlatformProfile.from_dict(application_name=hcs,
                                                   flowcell_description='HiSeq 3000/4000 SR').kind, 'HiSeq4000')
        self.assertEqual(PlatformProfile.from_dict(application_name=hcs,
                                                   flowcell_description='HiSeq Flow Cell v4').kind, 'HiSeq')

        self.assertFalse(PlatformProfile.from_dict(application_name=hcs,
                                                   flowcell_description='HiSeq X HD v2').platform_HiSeq)

        # Case matters
        self.assertEqual(PlatformProfile.from_dict(application_name='hiseq control software').kind, 'Unknown')

    def test_other_kinds(self):
        self.assertEqual(PlatformProfile.from_dict(run_parameters_version='MiniSeq_1_0').kind, 'MiniSeq')
        self.assertEqual(PlatformProfile.from_dict(application_name='NextSeq Control Software').kind, 'NextSeq')
        self.assertEqual(PlatformProfile.from_dict().kind, 'Unknown')

    def test_rapid_run_versions(self):
        self.assertTrue(PlatformProfile.from_dict(flowcell_description='HiSeq Rapid Flow Cell v2').is_rapid_run_v2)
        self.assertFalse(PlatformProfile.from_dict(flowcell_description='HiSeq Rapid Flow Cell v2').is_rapid_run_abovev2)
        self.assertTrue(PlatformProfile.from_dict(flowcell_description='HiSeq Rapid Flow Cell v3').is_rapid_run_abovev2)
        self.assertFalse(PlatformProfile.from_dict(flowcell_description='HiSeq Flow Cell v4').is_rapid_run_abovev2)

    def test_identity(self):
        # MiSeq gets the flowcell from the reagent kit
        md = RunMetadata( DATA_DIR + '/150602_M01270_0108_000000000-ADWKV' )
        self.assertEqual(md.identity.flowcell, 'MS3084547-600V3')
        self.assertEqual(md.identity.instrument_name, 'M01270')
        self.assertEqual(md.identity.experiment_name, '150602_Amplicons')

        md = RunMetadata( DATA_DIR + '/160614_K00368_0023_AHF724BBXX' )
        self.assertEqual(md.identity.flowcell, 'HF724BBXX')
        self.assertEqual(md.identity.run_id, '160614_K00368_0023_AHF724BBXX')

    def test_unused_tags_may_repeat(self):
        """Duplicate tags only matter if we actually need them. The MiSeq never looks at
           the RunInfo.xml Flowcell and nothing else looks at ReagentKitBarcode.
        """
        sb = TestSandbox( DATA_DIR + '/150602_M01270_0108_000000000-ADWKV' )
        self.addCleanup(sb.cleanup)
        ri = os.path.join(sb.sandbox, 'RunInfo.xml')
        with open(ri) as fh:
            xml = fh.read()
        with open(ri, 'w') as fh:
            fh.write(xml.replace('<Flowcell>000000000-ADWKV</Flowcell>',
                                 '<Flowcell>000000000-ADWKV</Flowcell><Flowcell>again</Flowcell>'))

        self.assertEqual(RunMetadata(sb.sandbox).identity.flowcell, 'MS3084547-600V3')

        sb2 = TestSandbox()
        self.addCleanup(sb2.cleanup)
        sb2.make('run1/RunInfo.xml', content="""<RunInfo><Run Id="run1"><Flowcell>HXXXXBBXX</Flowcell>
            <Reads><Read Number="1" NumCycles="151" IsIndexedRead="N"/></Reads>
            <FlowcellLayout LaneCount="8" SurfaceCount="2" SwathCount="2" TileCount="28"/>
            </Run></RunInfo>""")
        sb2.make('run1/RunParameters.xml', content="""<RunParameters><Setup>
            <ApplicationName>HiSeq Control Software</ApplicationName>
            <Flowcell>HiSeq 3000/4000 SR</Flowcell>
            <ReagentKitBarcode>1</ReagentKitBarcode><ReagentKitBarcode>2</ReagentKitBarcode>
            </Setup></RunParameters>""")

        md = RunMetadata(sb2.sandbox + '/run1')
        self.assertEqual(md.identity.flowcell, 'HXXXXBBXX')
        self.assertEqual(md.platform.reagent_kit_barcode, '')

        # But on the MiSeq it is needed
        with open(sb2.sandbox + '/run1/RunParameters.xml', 'w') as fh:
            fh.write("""<RunParameters><Setup><ApplicationName>MiSeq Control Software</ApplicationName>
                        <ReagentKitBarcode>1</ReagentKitBarcode><ReagentKitBarcode>2</ReagentKitBarcode>
                        </Setup></RunParameters>""")
        with self.assertRaises(InvalidDescriptor):
            RunMetadata(sb2.sandbox + '/run1').build()

    def test_build_once(self):
        """The metadata is read once and then the same object comes back,
           even if the files change.
        """
        sb = TestSandbox( DATA_DIR + '/160614_K00368_0023_AHF724BBXX' )
        self.addCleanup(sb.cleanup)

        md = RunMetadata(sb.sandbox)
        d1 = md.build()
        os.remove(os.path.join(sb.sandbox, 'RunInfo.xml'))

        self.assertIs(md.build(), d1)
        self.assertIs(md.geometry, d1.geometry)

        # A new instance will notice
        with self.assertRaises(FileNotFoundError):
            RunMetadata(sb.sandbox).build()

    def test_i5opposite_explicit_flags(self):
        self.assertTrue(does_runinfo_indicate_i5_is_rev_complement({'1': 'N', '3': 'Y'}))
        self.assertFalse(does_runinfo_indicate_i5_is_rev_complement({'1': 'N', '3': 'N'}))

        with self.assertRaises(InvalidDescriptor) as cm:
            does_runinfo_indicate_i5_is_rev_complement({'1': 'N', '2': 'Y'})
        self.assertEqual(str(cm.exception), 'Read 2 is marked as IsReverseComplement')

    def test_i5opposite_flags_override_platform(self):
        """A MiSeq run that says read 3 is reverse complemented is believed
        """
        sb = TestSandbox( DATA_DIR + '/150602_M01270_0108_000000000-ADWKV' )
        self.addCleanup(sb.cleanup)
        ri = os.path.join(sb.sandbox, 'RunInfo.xml')
        with open(ri) as fh:
            xml = fh.read()
        with open(ri, 'w') as fh:
            fh.write(xml.replace('Number="3" IsIndexedRead="N"',
                                 'Number="3" IsIndexedRead="N" IsReverseComplement="Y"'))

        self.assertTrue(RunMetadata(sb.sandbox).is_i5opposite())

    def test_novaseqx_without_flags(self):
        sb = TestSandbox( DATA_DIR + '/20230801_LH00123_0012_A22FJKLLT3' )
        self.addCleanup(sb.cleanup)
        ri = os.path.join(sb.sandbox, 'RunInfo.xml')
        with open(ri) as fh:
            xml = fh.read()
        with open(ri, 'w') as fh:
            for flag in ['Y', 'N']:
                xml = xml.replace(' IsReverseComplement="{}"'.format(flag), '')
            fh.write(xml)

        md = RunMetadata(sb.sandbox)
        # The geometry is still fine
        self.assertEqual(md.geometry.expected_cycle_count, 322)
        with self.assertRaises(UnsupportedConfiguration):
            md.is_i5opposite()

    def test_novaseq_consumable_version(self):
        sb = TestSandbox( DATA_DIR + '/180619_A00291_0044_BH5WJJDMXX' )
        self.addCleanup(sb.cleanup)
        rp = os.path.join(sb.sandbox, 'RunParameters.xml')
        with open(rp) as fh:
            xml = fh.read()
        with open(rp, 'w') as fh:
            fh.write(xml.replace('<SbsConsumableVersion>3<', '<SbsConsumableVersion>1<'))

        self.assertFalse(RunMetadata(sb.sandbox).is_i5opposite())

    def test_single_read_hiseqx(self):
        """The HiSeqX rule only applies to paired runs
        """
        sb = TestSandbox()
        self.addCleanup(sb.cleanup)
        sb.make('run1/RunInfo.xml', content="""<RunInfo><Run Id="run1"><Reads>
            <Read Number="1" NumCycles="151" IsIndexedRead="N"/>
            <Read Number="2" NumCycles="8" IsIndexedRead="Y"/></Reads>
            <FlowcellLayout LaneCount="8" SurfaceCount="2" SwathCount="2" TileCount="24"/>
            </Run></RunInfo>""")
        sb.make('run1/RunParameters.xml', content="""<RunParameters><Setup>
            <ApplicationName>HiSeq Control Software</ApplicationName>
            <Flowcell>HiSeq X HD v2</Flowcell></Setup></RunParameters>""")

        md = RunMetadata(sb.sandbox + '/run1')
        self.assertEqual(md.platform.kind, 'HiSeqX')
        self.assertFalse(md.geometry.is_paired)
        self.assertFalse(md.is_i5opposite())

if __name__ == '__main__':
    unittest.main()
