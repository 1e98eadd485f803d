"""Smart-contract data structures, operations, interpreter and manager."""