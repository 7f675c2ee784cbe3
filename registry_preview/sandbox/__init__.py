"""Assembly of the file map handed to the preview compiler."""
