"""cryptarchive core: configuration, models, storage, upstream client and the archive pipeline."""
