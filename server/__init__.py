"""POS integration sandbox server package."""
