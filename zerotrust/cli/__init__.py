# Zero Trust Decision Engine - Command Line Interface
