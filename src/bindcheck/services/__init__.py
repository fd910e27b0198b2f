# SPDX-License-Identifier: MPL-2.0
"""Services built on the bindcheck core."""
