"""
Normalization helpers shared by every adapter.

- values: placeholder detection and the adapter hard filter
- time_parsing: display time to UTC instant, source zones, local day windows
- currency: currency resolution for feed items
"""
