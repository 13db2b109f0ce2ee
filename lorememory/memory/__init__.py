"""Archive, conversation memory, retrieval composition and consistency validation."""
