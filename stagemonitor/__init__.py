#!/usr/bin/env python3
"""Watches Illumina run folders in the staging area and moves them from
   incoming to analysis to outgoing once they are complete.
"""
