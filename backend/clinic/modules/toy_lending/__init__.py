"""
Toy lending module.

Toys own their ToyUnits; a ToyBorrowing occupies one unit from issue until
return and links to a Borrower by id (email kept for legacy lookups).
Toy.availableUnits is always recounted from the units, never trusted from
client input.
"""
