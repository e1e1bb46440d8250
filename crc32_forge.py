# Adjust CRC32 / CRC32C checksums to arbitrary values
#
#   http://en.wikipedia.org/wiki/Cyclic_redundancy_check
#   http://blog.stalkr.net/2011/03/crc-32-forging.html
#   http://www.ross.net/crc/crcpaper.html
#
#   Martin Stigge, Henryk Ploetz, Wolf Mueller, Jens-Peter Redlich,
#   "Reversing CRC - Theory and Practice",
#   HU Berlin Public Report SAR-PR-2006-05 (May 2006)
#
# Copyright (c)2013 StalkR <github-misc@stalkr.net>
# Copyright (c)2018 Thomas Kindler <mail_git@t-kindler.de>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
"""Write 4 bytes into data so that its CRC32 or CRC32C equals a wanted value.

Useful to store the checksum of some data *within* the data itself, or to
force every file to a hard-coded checksum like 0x01020304:

    adjust_crc_buffer(zlib.crc32, data, 0x01020304, pos)   # bytearray, in place
    adjust_crc(crc32c.crc32c, "image.bin", 0x01020304)     # append to a file
"""
import binascii
import io
import os
import struct
import zlib

import crc32c


POLY32  = 0xedb88320    # CRC-32 (ISO 3309 / ITU-T V.42), reversed
POLY32C = 0x82f63b78    # CRC-32C (Castagnoli / iSCSI), reversed

MASK = 0xffffffff

CHUNK_SIZE = 64 * 1024


class CRCForgeError(Exception):
    """Base class for checksum adjustment errors."""


class PatchRangeError(CRCForgeError, IndexError):
    pass


class UnsupportedStreamError(CRCForgeError, io.UnsupportedOperation):
    pass


class UnsupportedVariantError(CRCForgeError, ValueError):
    pass


class CRC32(object):
    def __init__(self, poly):
        self.poly    = poly
        self.reverse = [0] * 256

        for i in range(256):
            rev = i << 24

            for _ in range(8):
                if rev & 0x80000000:
                    rev = (((rev ^ poly) << 1) & MASK) | 1
                else:
                    rev = (rev << 1) & MASK

            self.reverse[i] = rev


    def calc_back(self, wanted_crc, data):
        """Run the CRC register backwards over data, starting at wanted_crc

        Returns the register value that, fed forward over data, gives a
        final checksum of wanted_crc.
        """
        crc = wanted_crc ^ MASK
        for c in data[::-1]:
            crc = ((crc << 8) & MASK) ^ self.reverse[crc >> 24] ^ c
        return crc


CRC32_ISO = CRC32(POLY32)
CRC32_C   = CRC32(POLY32C)

EVALUATORS = {
    "crc32" : zlib.crc32,
    "crc32c": crc32c.crc32c,
}

_REVERSE_TABLES = {
    zlib.crc32     : CRC32_ISO,
    binascii.crc32 : CRC32_ISO,
    crc32c.crc32c  : CRC32_C,
}


def reverse_table(crc):
    """Return the CRC32 instance matching the evaluator function crc"""
    try:
        return _REVERSE_TABLES[crc]
    except (KeyError, TypeError):
        raise UnsupportedVariantError(
            "unsupported CRC function %r (use zlib.crc32 or crc32c.crc32c)" % (crc,)
        ) from None


def _check_crc(wanted_crc):
    if not 0 <= wanted_crc <= MASK:
        raise ValueError("wanted CRC 0x%x is not a 32 bit value" % wanted_crc)


def adjust_crc_buffer(crc, data, wanted_crc, pos):
    """Write 4 bytes to data[pos:pos+4] so that crc(data) == wanted_crc

    data must be a mutable buffer (bytearray, writable memoryview) and is
    patched in place and returned. crc is zlib.crc32 or crc32c.crc32c.

    This is fastest for pos near the end of data, since the backward pass
    only runs over data[pos:].
    """
    table = reverse_table(crc)
    _check_crc(wanted_crc)

    if pos < 0 or pos + 4 > len(data):
        raise PatchRangeError(
            "patch at %d..%d is outside of buffer of %d bytes" % (pos, pos + 3, len(data))
        )

    # Placeholder: forward register state after data[:pos]
    #
    data[pos:pos+4] = struct.pack('<L', crc(data[:pos]) ^ MASK)
    data[pos:pos+4] = struct.pack('<L', table.calc_back(wanted_crc, data[pos:]))
    return data


def adjusted(crc, data, wanted_crc, pos):
    """Like adjust_crc_buffer(), but return a patched copy of data as bytes"""
    return bytes(adjust_crc_buffer(crc, bytearray(data), wanted_crc, pos))


def file_crc(crc, f):
    """Calculate crc over the whole stream or file f, in chunks"""
    if isinstance(f, (str, os.PathLike)):
        with open(f, "rb") as stream:
            return file_crc(crc, stream)

    f.seek(0)
    value = 0
    while True:
        chunk = f.read(CHUNK_SIZE)
        if not chunk:
            return value
        value = crc(chunk, value)


def adjust_crc(crc, f, wanted_crc):
    """Append 4 bytes to a stream or file so that its crc becomes wanted_crc

    f is either a path, which is opened for update and closed again, or a
    seekable binary stream that is both readable and writable. The stream
    is read in chunks, so the file never has to fit into memory.

    Returns f: the same stream object, or for a path the path itself, with
    the file already closed.
    """
    if isinstance(f, (str, os.PathLike)):
        reverse_table(crc)
        _check_crc(wanted_crc)
        with open(f, "r+b") as stream:
            adjust_crc(crc, stream, wanted_crc)
        return f

    table = reverse_table(crc)
    _check_crc(wanted_crc)

    if not f.readable():
        raise UnsupportedStreamError("stream must be readable")
    if not f.writable():
        raise UnsupportedStreamError("stream must be writable")
    if not f.seekable():
        raise UnsupportedStreamError("stream must be seekable")

    # Same as adjust_crc_buffer() with pos at the end of the stream, so
    # only the checksum of the existing content is needed.
    #
    fwd_crc = file_crc(crc, f)
    patch = table.calc_back(wanted_crc, struct.pack('<L', fwd_crc ^ MASK))

    f.seek(0, os.SEEK_END)
    f.write(struct.pack('<L', patch))
    return f
