"""Import pipeline services: resolution, grouping, review, commit and rollup."""
