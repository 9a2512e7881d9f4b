# ltntools

A library of helpers for MPEG transport streams (ISO/IEC 13818-1). It has no
dependencies outside the standard library.

## Modules

### `ltntools.bitstream`

`BitStream` reads or writes bit fields of any width over a fixed-size buffer.
A stream is used either for reading or for writing, not both.

- `BitStream(buffer)` wraps existing bytes. `BitStream.allocate(size)` creates
  a zero-filled buffer of that size.
- Writing: `write_bit`, `write_bits(bits, bitcount)` (most significant bit first),
  `write_byte_stuff(bit)` to pad to a byte boundary, and `flush()` to pad any
  pending bits with zeros.
- Reading: `read_bit`, `read_bits(bitcount)`, `read_byte_stuff()`, and
  `peek_bits(bitcount)`, which does not advance the stream. `peek_binary(bitcount)`
  returns the next bits as a string of `0` and `1` with a space after every byte.
- State: `byte_count`, `buffer_size`, `bytes_free` and `overrun`. Running past
  the end of the buffer never raises. It sets `overrun` instead.
- `getvalue()` returns the bytes used so far. `save(path)` writes them to a file.
- `bitmove(dst, src, bits)` moves bits from one stream to another.
  `bitcopy(dst, src, bits)` copies them without advancing `src`.

### `ltntools.ts`

Functions for single transport packets and for buffers of packets:

- Header fields: `pid`, `sync_present`, `adaptation_field_control`,
  `has_adaptation`, `adaptation_field_length`, `section_table_id`.
- PCR handling: `scr(pkt)` returns the packet's PCR in 27 MHz ticks, or `None`
  if the packet has no PCR. `pcr_to_scr(data)` decodes six raw PCR bytes.
  `pack_pcr(pcr)` encodes them.
- Building packets: `generate_pcr_only_packet`, `generate_null_packet` and
  `generate_packet_with_counter`. `update_packet_with_counter` rewrites a packet
  in place. Functions that take a continuity counter return the packet (if any)
  together with the next counter value.
- `verify_packet_with_counter(pkt, pid, last_counter)` returns the 64-bit counter
  of a counter test packet. It raises `ValueError` if the header, the counter
  sequence or the fill bytes are wrong.
- Searching: `find_sync_position` and `find_pes_header`/`find_pes_header_reverse`
  return an offset or `None`. `query_pcrs(buf, addr)` returns every PCR in a
  buffer as `PcrPosition(pid, offset, pcr)` records, and skips 12-byte RTP
  headers. `query_pcr_pid(buf, pcr_pid, aligned)` returns the first PCR on one pid.
- Stream types: `is_video_stream_type`, `is_audio_stream_type`,
  `stream_type_description`.
- Formatting: `pts_to_ascii(pts)` and `pcr_to_ascii(pcr)` render a value as
  `days.hh:mm:ss.mmm`.

### `ltntools.packetizer`

- `packetize(data, pid, cc)` splits a payload into 188-byte packets and returns
  `(packets, next_cc)`. The first packet has payload_unit_start_indicator set.
  The last packet is padded with `0xff`.
- `packetize_with_pcr(data, pid, cc, pcr)` does the same and also places `pcr`
  in an adaptation field of the first packet. A `pcr` of `None` or below zero
  means the packets carry no PCR.

### `ltntools.hexdump`

`hexdump(buf, bytes_per_row=16)` returns the bytes as hex pairs, one row of
`bytes_per_row` bytes per line.

### `ltntools.histogram`

`Histogram(name, min_ms, max_ms)` counts millisecond values in 1 ms `Bucket`s.
Values outside the range are counted in `bucket_miss_count`.
`Histogram.video_defaults(name)` covers 0 to 16 seconds.

- `update_with_value(ms)` counts a single value.
- `interval_update(timestamp)` counts the time since the previous call.
- `sample_begin()` and `sample_end()` time one piece of work.
- `cumulative_initialize()`, `cumulative_begin()`, `cumulative_end()` and
  `cumulative_finalize()` add up several timed pieces into one value.
- `report(seconds=0)` returns the histogram as text.
  `summary_report(seconds, bucket_size_ms)` regroups the buckets into wider ones
  before rendering. When `seconds` is set, both return `None` until that much
  time has passed since their last report.
- `reset()` clears all counts.

### `ltntools.udp_receiver`

`UdpReceiver(address, port, callback, socket_buffer_size, strip_rtp)` binds a
UDP socket. After `start()`, a background thread passes each datagram to
`callback` as `bytes`. With `strip_rtp` set, each datagram goes through
`strip_rtp_header`, which removes the 12-byte RTP header and any trailing bytes
that do not form whole 188-byte packets.

For multicast addresses, `join_multicast(ifname)` and `drop_multicast(ifname)`
join or leave the group. Pass `None` as `ifname` to use the default interface.
For an address that is not multicast they raise `ValueError`. `close()` stops
the thread, leaves any groups that were joined and closes the socket. The
receiver also works as a context manager.

### `ltntools.vbv`

`VbvBuffer(pid, callback, profile)` models a decoder's video buffer. You write
frames into it with `write(PesFrame(...))`. The buffer reports `VbvEvent`s to
`callback`:

- `OVERFLOW` when a frame would not fit. `write` then also raises `BufferError`.
- `UNDERFLOW` when the decoder finds the buffer empty.
- `FULLNESS_PCT` when occupancy is at or below 2.5 % or at or above 96 %.

The decoder starts draining once the buffered frames span more than 0.6 seconds
of DTS. `drain_one()` performs a single decoder step. `start()` runs the decoder
on a thread, one frame per frame period. `close()` stops that thread.

Profiles: `profile_defaults(codec, level_x10, framerate)` builds a
`DecoderProfile`. It raises `ValueError` for an unknown level or an unsupported
frame rate. `bitrate_lookup(codec, level_x10)` gives the H.264 (codec 1) buffer
size in bytes, or `None` if the level is unknown. Other helpers are
`is_valid_framerate`, `validate_profile`, `event_name`, `framerate_to_ns`,
`framerate_to_us` and `framerate_to_ticks`.

## What it does not do

This is a library only. It has no command-line tool. It does not parse PSI
tables (PAT, PMT, SDT), demultiplex streams, run TR 101 290 conformance checks,
read pcap captures or write recordings to disk.

## Installation

```
pip install .
```

To run the tests, install the test extra and run pytest:

```
pip install .[test]
pytest
```

## Example

```python
from ltntools.ts import generate_pcr_only_packet, scr, pid
from ltntools.packetizer import packetize

pkt, cc = generate_pcr_only_packet(0x100, 0, 27_000_000)
assert pid(pkt) == 0x100
assert scr(pkt) == 27_000_000

packets, cc = packetize(b"\x00\x00\x01\xe0" + bytes(400), 0x101, 0)
print(len(packets), "packets")
```

```python
from ltntools.bitstream import BitStream

bs = BitStream.allocate(4)
bs.write_bits(0x47, 8)
bs.write_bits(0x1FFF, 13)
bs.flush()
reader = BitStream(bs.getvalue())
assert reader.read_bits(8) == 0x47
```