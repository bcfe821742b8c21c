"""
File classification.

See :mod:`repo_stat.classify.file_classifier` for the file type tags and
the noise-line predicate used by the patch comparator.
"""

from .file_classifier import classify_file, is_binary_file, is_noise_line  # noqa: F401
