"""
Build Agent Installer: Process return codes
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

RETURN_CODE_OK = 0
RETURN_CODE_ERROR = -1
