"""sshmirror: mirror a local tree onto a remote host while you work in a remote shell"""

__version__ = "0.3.0"
