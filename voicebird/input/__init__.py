"""Audio inputs: readers, codecs, containers, metadata, in-memory caching and Input."""