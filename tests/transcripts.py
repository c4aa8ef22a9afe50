"""Captured dry-run transcripts used across the test modules."""

APT_CLEAN = """\
Reading package lists...
Building dependency tree...
Reading state information...
Calculating upgrade...
The following packages will be upgraded:
  curl libcurl4
2 upgraded, 0 newly installed, 0 to remove and 0 not upgraded.
Inst curl [7.81.0-1ubuntu1.14] (7.81.0-1ubuntu1.15 Ubuntu:22.04/jammy-updates [amd64])
Inst libcurl4 [7.81.0-1ubuntu1.14] (7.81.0-1ubuntu1.15 Ubuntu:22.04/jammy-updates [amd64])
Conf curl (7.81.0-1ubuntu1.15 Ubuntu:22.04/jammy-updates [amd64])
Conf libcurl4 (7.81.0-1ubuntu1.15 Ubuntu:22.04/jammy-updates [amd64])
"""

APT_REMOVE = """\
Reading package lists...
Building dependency tree...
Calculating upgrade...
The following packages will be REMOVED:
  foo bar
The following packages will be upgraded:
  baz
1 upgraded, 0 newly installed, 2 to remove and 0 not upgraded.
Remv foo [1.0-1]
Remv bar [2.3-4]
Inst baz [1.1] (1.2 Debian:12/stable [amd64])
"""

APT_KEPT_BACK = """\
Reading package lists...
Building dependency tree...
Calculating upgrade...
The following packages have been kept back: libssl1.1
0 upgraded, 0 newly installed, 0 to remove and 1 not upgraded.
"""

APT_KEPT_BACK_BLOCK = """\
Calculating upgrade...
The following packages have been kept back:
  linux-generic linux-headers-generic
  linux-image-generic
0 upgraded, 0 newly installed, 0 to remove and 3 not upgraded.
"""

APT_DIST_CLEAN = """\
Calculating upgrade...
The following NEW packages will be installed:
  libssl3
The following packages will be upgraded:
  libssl1.1
1 upgraded, 1 newly installed, 0 to remove and 0 not upgraded.
Inst libssl3 (3.0.11-1 Debian:12/stable [amd64])
Inst libssl1.1 [1.1.1n-0] (1.1.1w-0 Debian:12/stable [amd64])
"""

APT_DIST_REMOVE = """\
Calculating upgrade...
The following packages will be REMOVED:
  libssl-legacy
The following NEW packages will be installed:
  libssl3
The following packages will be upgraded:
  libssl1.1
1 upgraded, 1 newly installed, 1 to remove and 0 not upgraded.
"""

DNF_CLEAN = """\
Last metadata expiration check: 0:12:01 ago on Mon 12 Oct 2026 09:00:00 AM UTC.
Dependencies resolved.
================================================================================
 Package          Arch       Version                Repository           Size
================================================================================
Upgrading:
 openssl          x86_64     1:3.0.7-25.el9         baseos              1.2 M

Transaction Summary
================================================================================
Upgrade  1 Package

Total download size: 1.2 M
Operation aborted.
"""

DNF_REMOVE = """\
Dependencies resolved.
================================================================================
 Package              Arch      Version            Repository            Size
================================================================================
Upgrading:
 python3-libs         x86_64    3.9.18-3.el9       baseos                 8.0 M
Removing dependent packages:
 python3-legacy-tool  noarch    1.0-1.el9          @epel                   40 k

Transaction Summary
================================================================================
Upgrade  1 Package
Remove   1 Package

Operation aborted.
"""

YUM_CONFLICT = """\
Loaded plugins: fastestmirror
Resolving Dependencies
--> Running transaction check
---> Package glibc.x86_64 0:2.17-317.el7 will be updated
Error: conflicting requests
 You could try using --skip-broken to work around the problem
"""
