"""MPEG transport stream utilities: bit streams, packet and PCR helpers, packetizing, hex dumps, histograms, UDP reception and VBV modelling."""

__version__ = "0.1.0"