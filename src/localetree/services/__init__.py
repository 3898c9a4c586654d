"""Engine services: merge, build, coverage, diff, write queue and the loader."""
