'''
lxb2tsv.py - convert an lxb file to text files of intensities or keywords
=========================================================================

:Author:
:Release: $Id$
:Date: |today|
:Tags: Python

Purpose
-------

.. Decode a Luminex .lxb (FCS3.0) file and output either the event
intensities, one row per parameter, or the TEXT segment keywords.
Optionally load the events into an SQLite database.

Usage
-----

.. Example use case

Example::

   python lxb2tsv.py --output-format=data well_A1.lxb > well_A1.tsv

Type::

   python lxb2tsv.py --help

for command line help.

Command line options
--------------------

'''

import sys
import cgatcore.experiment as E
import PipelineLXB as PL
from FlowLXB import LXBIO


def main(argv=None):
    """script main.
    parses command line options in sys.argv, unless *argv* is given.
    """

    if argv is None:
        argv = sys.argv

    # setup command line parser
    parser = E.ArgumentParser(description=__doc__)

    parser.add_argument("--version", action="version", version="1.0")

    parser.add_argument("--output-format", dest="out_format", type=str,
                        choices=("data", "text"), help="output either the "
                        "event intensities or the TEXT segment keywords")

    parser.add_argument("--strip-dollar", dest="strip_dollar",
                        action="store_true", help="remove the leading $ "
                        "from TEXT keywords")

    parser.add_argument("--database", dest="database", type=str,
                        help="SQLite database to load events into")

    parser.add_argument("--tablename", dest="table", type=str,
                        help="table to load events into")

    parser.add_argument("--sample-id", dest="sample_id", type=str,
                        help="sample identifier for database records, "
                        "defaults to the file name")

    parser.add_argument("lxb_file", type=str,
                        help="path to the .lxb file to convert")

    parser.set_defaults(out_format="data",
                        strip_dollar=False,
                        database=None,
                        table="lxb_events",
                        sample_id=None)

    # add common options (-h/--help, ...) and parse command line
    args = E.start(parser, argv=argv)

    infile = args.lxb_file
    E.info("decoding %s" % infile)
    lxb = LXBIO.LXB(infile)

    if args.out_format == "text":
        out_text = PL.text_to_series(lxb.key_words,
                                     strip_dollar=args.strip_dollar)
        out_text.to_csv(args.stdout, sep="\t", header=False)
    elif args.out_format == "data":
        out_df = PL.data_to_frame(lxb)
        if out_df is None:
            E.warn("no data decoded from %s: %s" % (infile, lxb.error))
        else:
            out_df.to_csv(args.stdout, sep="\t")
    else:
        pass

    if args.database:
        sample_id = args.sample_id or infile.split("/")[-1]
        PL.load_lxb_db(db=args.database,
                       table_name=args.table,
                       lxb=lxb,
                       sample_id=sample_id)

    # write footer and output benchmark information.
    E.stop()

if __name__ == "__main__":
    sys.exit(main(sys.argv))
