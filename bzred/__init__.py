"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
BZRED - Bugzilla to Redmine
A CLI tool for migrating a Bugzilla database into a Redmine database
"""

__version__ = "0.1.0"
