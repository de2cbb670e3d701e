"""Machine learning module for the SimRec recommendation engine.

This module contains the preference resolution and indexing steps, the
implicit ALS trainer, the item similarity predictor shared by every
algorithm, and the score fusion used to combine their rankings.
"""
