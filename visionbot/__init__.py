"""
Vision bots for the Bot Framework / Teams channel.

- Caption bot: replies with a one-line description of a picture.
- OCR bot: recognizes the text in a picture and offers it as a file, delivered
  through the Teams file consent flow.
"""

__version__ = "1.0.0"
