# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Source acquisition and verification for kernelstats.

Everything needed to turn "which kernel releases do we want" into an ordered
queue of analyzable source trees: the release catalog, the archive verifier,
the download/cache manager, the git tag source and the unifier that merges
archives and tags into one queue. No statistics logic lives here.
"""
