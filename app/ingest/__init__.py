"""Building blocks of the video upload pipeline."""
