# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the authentication and error handling components used
by the tourist safety registry API.
"""
