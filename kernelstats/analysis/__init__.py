# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Statistics for acquired kernel sources.

Takes the unit queue built by kernelstats.sources, materializes each source
tree, runs tokei over it and writes one compressed report per release.
"""
