# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

from procvisor.cli.parser import cli_main

cli_main()
