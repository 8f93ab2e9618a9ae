"""Test package for the Americas map quiz.

Core modules are tested without a display. The pygame smoke tests use SDL's
dummy video/audio drivers so no real window is opened. To run the tests,
execute ``pytest`` from the project root.
"""
