# Reading Luminex .lxb (FCS3.0) files
