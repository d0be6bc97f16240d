# Response code for a missing (not administered / skipped) response
MISSING_VALUE = -1
