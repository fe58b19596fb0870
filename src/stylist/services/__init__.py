"""Collaborators around the pipeline: settings, styles, session config, clipboard."""
