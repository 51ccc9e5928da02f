"""Key-value database interface, in-memory backend and write batches."""