#!/usr/bin/env python3
import os, re
import logging
import xml.etree.ElementTree as ET

from stagemonitor.errors import DescriptorNotFound, AmbiguousDescriptor, InvalidDescriptor

L = logging.getLogger(__name__)

# The instrument writes these into the run folder. The first letter of the
# run parameters file varies by sequencer.
RUNINFO_PATTERN = r'[Rr]unInfo\.xml'
RUNPARAMETERS_PATTERN = r'[Rr]unParameters\.xml'
INTENSITIES_CONFIG_PATTERN = r'config\.xml'

def find_descriptor(directory, pattern):
    """Find the one file in directory whose name matches the regex pattern.
       The directory may well be a symlink to the real run folder, so we list
       it as a directory rather than stat-ing the link.
    """
    matcher = re.compile(pattern)

    # Appending the separator forces resolution of a symlinked directory
    dir_to_list = os.path.join(directory, '')
    try:
        names = os.listdir(dir_to_list)
    except OSError as e:
        raise DescriptorNotFound("File not found for {} in {}: {}".format(pattern, directory, e))

    files = sorted( os.path.join(directory, n) for n in names
                    if matcher.fullmatch(n) and os.path.isfile(os.path.join(dir_to_list, n)) )

    if not files:
        raise DescriptorNotFound("File not found for {} in {}".format(pattern, directory))
    if len(files) > 1:
        raise AmbiguousDescriptor("Multiple files found: " + ','.join(files))

    return files[0]

def load_descriptor(directory, pattern):
    """Find the descriptor as above and return the root element of the parsed document.
    """
    xml_file = find_descriptor(directory, pattern)
    L.debug("Loading {}".format(xml_file))
    try:
        return ET.parse(xml_file).getroot()
    except ET.ParseError as e:
        raise InvalidDescriptor("Cannot parse {}: {}".format(xml_file, e))

def get_single_element_text(root, tag_name):
    """Text of the single element named tag_name anywhere in the document.
       Missing element, or an element with no text, gives ''.
    """
    elements = list(root.iter(tag_name))
    if len(elements) > 1:
        raise InvalidDescriptor("Multiple {} tags".format(tag_name))
    if elements:
        return (elements[0].text or '').strip()
    return ''
