"""Exceptions raised by the bundle tools.

The CLI catches ``PageBundleError`` and turns it into a one-line message
and exit code 1; anything else is a bug and propagates.
"""

from __future__ import annotations


class PageBundleError(Exception):
    pass


class ConfigError(PageBundleError):
    pass


class InvalidTitleError(PageBundleError):
    pass


class FrontmatterError(PageBundleError):
    pass


class NotABundleError(PageBundleError):
    pass


class BundleExistsError(PageBundleError):
    def __init__(self, path):
        super().__init__(f"bundle already exists: {path}")
        self.path = path


class BundleIntegrityError(PageBundleError):
    def __init__(self, path, issues):
        super().__init__(
            f"{path}: {len(issues)} reference(s) would break if moved"
        )
        self.path = path
        self.issues = issues


class UnreadableEntryError(PageBundleError):
    pass
