#!/usr/bin/env python3
"""
Minimal Example: imagetarget API Usage
======================================

Shows the essential API calls without extra boilerplate.
This is the "quick reference" version.
"""

import asyncio

from imagetarget import ImageTargetCompiler, OneEuroFilter


# =============================================================================
# STEP 1: COMPILATION
# Equivalent to: imagetarget compile card.png poster.jpg -o targets.mind
# =============================================================================

images = ["card.png", "poster.jpg"]

compiler = ImageTargetCompiler()
targets = asyncio.run(compiler.compile_image_targets(
    images,
    lambda percent: print(f"\rCompiling: {percent:5.1f}%", end=''),
))
print()

for i, target in enumerate(targets):
    points = sum(k.num_points for k in target.matching_data)
    print(f"target {i}: {target.width}x{target.height}, {points} points")

compiler.save("targets.mind")


# =============================================================================
# STEP 2: LOADING
# A fresh compiler imports the bundle; an outdated bundle gives []
# =============================================================================

loaded = ImageTargetCompiler().load("targets.mind")
print(f"Loaded {len(loaded)} target(s)")


# =============================================================================
# STEP 3: POSE SMOOTHING
# Timestamps are in milliseconds, samples may be any array shape
# =============================================================================

one_euro = OneEuroFilter(min_cutoff=0.001, beta=1000)
for t, x in [(0.0, [0.0, 0.0]), (16.0, [1.0, 0.5]), (33.0, [1.2, 0.4])]:
    print(t, one_euro.filter(t, x))
