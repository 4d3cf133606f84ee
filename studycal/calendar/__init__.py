"""Calendar document interchange: parsing, encoding, validation and import mapping."""
