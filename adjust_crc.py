#!/usr/bin/env python3
#
# Force the CRC32 or CRC32C checksum of a file to a desired value
#
# Copyright (c)2026 Thomas Kindler <mail_git@t-kindler.de>
#
# 2026-10-18, tk:   v1.0.0, Initial implementation, derived from add_version_info.py
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.
#
import argparse
import shutil
import sys

import crc32_forge
from crc32_forge import CRCForgeError


args = None


def dprint(*text):
    if args.verbose:
        for s in text:
            print(s, end=' ')
        print()


def crc_value(text):
    value = int(text, 0)
    if not 0 <= value <= crc32_forge.MASK:
        raise argparse.ArgumentTypeError("CRC must be a 32 bit value")
    return value


def parse_args(argv=None):
    global args

    parser = argparse.ArgumentParser(
        prog="adjust-crc",
        description="Append or patch 4 bytes so that the CRC of a file becomes a desired value",
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "source", help="source file"
    )

    parser.add_argument(
        "target", nargs="?",
        help="Target file (default: overwrite source)"
    )

    parser.add_argument(
        "--version", action="version", version="%(prog)s 1.0.0"
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Print status messages"
    )

    parser.add_argument(
        "--crc", type=crc_value, default="0x00000000",
        help="Desired CRC result for the file\n"
             "(default: %(default)s)"
    )

    parser.add_argument(
        "-C", "--castagnoli", action="store_true",
        help="Use CRC-32C (Castagnoli) instead of CRC-32"
    )

    parser.add_argument(
        "-o", "--offset", type=int,
        help="Overwrite 4 bytes at this offset instead of\n"
             "appending them to the end of the file"
    )

    parser.add_argument(
        "--check", action="store_true",
        help="Only print the current CRC of the source file"
    )

    args = parser.parse_args(argv)

    args.crc_fn = crc32_forge.EVALUATORS["crc32c" if args.castagnoli else "crc32"]

    if args.target is None:
        args.target = args.source


def patch_offset():
    dprint("Loading \"%s\"..." % args.source)

    with open(args.source, "rb") as f:
        data = bytearray(f.read())

    dprint("  size        = %d" % len(data))
    dprint("  patch at    = %d" % args.offset)

    crc32_forge.adjust_crc_buffer(args.crc_fn, data, args.crc, args.offset)

    dprint("Saving \"%s\"..." % args.target)

    with open(args.target, "wb") as f:
        f.write(data)


def patch_append():
    if args.target != args.source:
        dprint("Copying \"%s\" to \"%s\"..." % (args.source, args.target))
        shutil.copyfile(args.source, args.target)

    dprint("Appending to \"%s\"..." % args.target)

    crc32_forge.adjust_crc(args.crc_fn, args.target, args.crc)


def main(argv=None):
    parse_args(argv)

    try:
        if args.check:
            print("0x%08x" % crc32_forge.file_crc(args.crc_fn, args.source))
            return 0

        if args.verbose:
            dprint("  current crc = 0x%08x" % crc32_forge.file_crc(args.crc_fn, args.source))

        if args.offset is not None:
            patch_offset()
        else:
            patch_append()

        result = crc32_forge.file_crc(args.crc_fn, args.target)
        dprint("  new crc     = 0x%08x" % result)

        if result != args.crc:
            raise CRCForgeError("CRC self test failed: 0x%08x != 0x%08x" % (result, args.crc))

    except (CRCForgeError, OSError) as e:
        sys.exit("adjust-crc: error: %s" % e)

    return 0


if __name__ == '__main__':
    sys.exit(main())
