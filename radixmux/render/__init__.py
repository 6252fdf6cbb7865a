"""Content type detection, request body decoding and response rendering."""