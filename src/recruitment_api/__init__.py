"""Recruitment intake API: job applications, review workflow and retention."""
