"""
ryoshu.ui
~~~~~~~~~
Local web API for issuing receipts from a browser. Requires the ``ui`` extra.
"""
