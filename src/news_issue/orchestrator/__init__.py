"""Sequential issue pipeline with bounded step retry."""
