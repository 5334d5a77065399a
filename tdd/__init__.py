# wmgr Test Suite
# This package contains all tests organized by type:
# - unit/: Fast, isolated tests for individual functions/classes
# - integration/: Real git repositories in temporary directories, driven through use cases and the CLI
# - shared/: Git repository builders and factories
