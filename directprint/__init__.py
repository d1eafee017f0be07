"""DirectPrint - Local print agent for cloud-submitted print jobs.

DirectPrint runs on a kiosk machine (Raspberry Pi, desktop, etc.), keeps a
connection open to the cloud hub and polls it for print jobs. Each job is
saved locally, converted to PDF when needed (LibreOffice for documents,
ImageMagick for images) and printed through the local CUPS spooler.

Usage:
    directprint check
    directprint start
    directprint status
    directprint printers
"""

__version__ = "0.5.0"
